# app/models/user.py
"""
Operator accounts (admins and cashiers).
Owned by the identity provider; the engine only reads id, name and role.
"""

from sqlalchemy import Boolean, Column, Integer, String, DateTime
from app.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False)       # admin | cashier
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<User {self.username} role={self.role}>"
