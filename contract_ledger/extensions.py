"""
contract_ledger/extensions.py

Flask extension singletons. They are bound to the app in create_app().

- db: Flask-SQLAlchemy, shared by the models and the persistence gateway.
- migrate: Flask-Migrate. Batch mode so column changes work on SQLite too.
- login_manager: Flask-Login cookie sessions (JSON 401 is set in create_app).
- csrf: Flask-WTF protection for cookie-authenticated mutations.
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate(compare_type=True, render_as_batch=True)
login_manager = LoginManager()
csrf = CSRFProtect()
