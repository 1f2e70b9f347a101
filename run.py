"""
WSGI entry point of the Contract Ledger API.

Usage (from project root):

    flask --app run.py init-db
    flask --app run.py create-user admin --email admin@example.com
    flask --app run.py create-bucket
    flask --app run.py --debug run

Blob storage defaults to local files under BLOB_ROOT; set BLOB_BACKEND=b2
with B2_KEY_ID / B2_APPLICATION_KEY to use Backblaze B2.
"""

from contract_ledger import create_app

app = create_app()

if __name__ == "__main__":
    # dev server only; deploy behind a WSGI server
    app.run(debug=True)
