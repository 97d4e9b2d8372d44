import sys

from app import create_app, db
from models import User
from werkzeug.security import generate_password_hash


def reset_password(app, username, password, role='admin'):
    """Resets a user's password, creating the user if it does not exist."""
    with app.app_context():
        user = User.query.filter_by(username=username).first()
        if user:
            print(f"Found user {username}.")
            user.password_hash = generate_password_hash(password)
            db.session.commit()
            print(f"Password reset for {username}.")
        else:
            print(f"User {username} not found! Creating one as {role}...")
            user = User(
                username=username,
                password_hash=generate_password_hash(password),
                role=role
            )
            db.session.add(user)
            db.session.commit()
            print(f"Created {role} user {username}.")
        return user.id


if __name__ == '__main__':
    if len(sys.argv) < 3:
        print("Usage: python reset_password.py <username> <password> [role]")
        sys.exit(1)
    reset_password(create_app(), *sys.argv[1:4])
