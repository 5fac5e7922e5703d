class RoomError(Exception):
    """Base class for per-request room failures."""

    def __init__(self, room_id: str, message: str):
        super().__init__(message)
        self.room_id = room_id


class RoomNotFound(RoomError):
    def __init__(self, room_id: str):
        super().__init__(room_id, f"Room {room_id} not found")


class Unauthorized(RoomError):
    def __init__(self, room_id: str, reason: str = "invalid credential"):
        super().__init__(room_id, f"Unauthorized for room {room_id}: {reason}")
        self.reason = reason
