# courses/services/__init__.py
from .responses import ErrorCode, ServiceResult, fail, ok

__all__ = [
    'ErrorCode',
    'ServiceResult',
    'fail',
    'ok',
]
