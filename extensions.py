# Flask extension instances, bound to the app in create_app()
from flask_bcrypt import Bcrypt
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_mail import Mail

bcrypt = Bcrypt()
jwt = JWTManager()
mail = Mail()
limiter = Limiter(key_func=get_remote_address)
