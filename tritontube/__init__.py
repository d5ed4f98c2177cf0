"""Video sharing site with DASH streaming, SQLite or etcd metadata, and local or consistent-hashed gRPC storage."""

__version__ = "0.1.0"