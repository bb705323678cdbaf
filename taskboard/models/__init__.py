"""
Taskboard - Project Tracking API
Models package.

The SQLAlchemy extension lives here so every model module can do
``from taskboard.models import db`` without importing the app factory.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
