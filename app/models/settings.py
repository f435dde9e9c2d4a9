"""
Settings Model
Key-value store for runtime-toggleable application settings
"""
from sqlalchemy import Column, String, Integer, DateTime, JSON
from datetime import datetime
from app.database import Base


class Setting(Base):
    """
    Settings table to store application configuration
    Values are JSON so booleans and ids keep their type
    """
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Setting key={self.key}>"
