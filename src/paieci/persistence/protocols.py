"""Re-export persistence protocols from core for convenience."""

from __future__ import annotations

from paieci.core.protocols import ICacheBackend, IPayrollStore, IPolicyStore

__all__ = ["ICacheBackend", "IPayrollStore", "IPolicyStore"]
