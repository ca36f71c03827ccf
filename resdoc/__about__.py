__version__ = "0.1.0"
__description__ = "resdoc : json:api document building for Flask and SqlAlchemy resources"
