import uuid
import datetime


def generate_request_id() -> str:
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    rand = uuid.uuid4().hex[:6]
    return f"request_{ts}_{rand}"
