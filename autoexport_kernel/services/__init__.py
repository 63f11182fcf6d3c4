from autoexport_kernel.services.base import BaseService

__all__ = ["BaseService"]
