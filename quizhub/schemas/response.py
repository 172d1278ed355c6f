from typing import Any, Dict


def success_response(data: Any = None, message: str = "Success") -> Dict[str, Any]:
    """Standard envelope for successful API responses"""
    return {"success": True, "message": message, "data": data}
