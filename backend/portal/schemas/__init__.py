# portal/schemas/__init__.py
"""
Schema module initialization.
Exports all schema classes from submodules for convenient imports.
"""
from .account import *
from .auth import *
from .password import *
