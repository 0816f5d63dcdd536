"""Library Service - Core Application Package

This package contains the catalog service core:
- Entity models (book.py, member.py, loan.py)
- Validation rules (validators.py)
- Storage layer (repository.py, database.py, memory.py)
- Business services (services/)
- Library facade (library.py)
- HTTP adapter (api.py) and CLI (main.py)
"""

__version__ = "1.0.0"
