import json
import os
import socket
import time

TIMEOUT = int(os.getenv("TIMEOUT_S", "120"))
REDIS_HOST = os.getenv("REDIS_HOST", "redis")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
QUEUE_HOST = os.getenv("QUEUE_HOST", REDIS_HOST)
QUEUE_PORT = int(os.getenv("QUEUE_PORT", str(REDIS_PORT)))
DB_HOST = os.getenv("DB_HOST", "postgres")
DB_PORT = int(os.getenv("DB_PORT", "5432"))


def tcp_ok(host: str, port: int) -> bool:
    try:
        s = socket.create_connection((host, port), timeout=2)
        s.close()
        return True
    except OSError:
        return False


def check() -> dict:
    return {
        "redis": tcp_ok(REDIS_HOST, REDIS_PORT),
        "queue": tcp_ok(QUEUE_HOST, QUEUE_PORT),
        "database": tcp_ok(DB_HOST, DB_PORT),
    }


def main() -> int:
    deadline = time.time() + TIMEOUT
    status = check()
    while time.time() < deadline:
        if all(status.values()):
            print(json.dumps({"ready": True, **status}))
            return 0
        time.sleep(2)
        status = check()
    print(json.dumps({"ready": False, **status}))
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
