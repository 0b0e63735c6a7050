# padrelay wire constants (message tags, field names, close codes)

# Message types
T_SERVER_IP = "SERVER_IP"
T_ASSIGN_PLAYER = "ASSIGN_PLAYER"
T_ROOM_FULL = "ROOM_FULL"
T_PLAYERS = "PLAYERS"
T_INPUT = "INPUT"

# Message fields
F_TYPE = "type"
F_IP = "ip"
F_PORT = "port"
F_PLAYER = "player"
F_COUNT = "count"

# First client frame: {"role": "controller"} requests a player slot.
# Anything else (including no role at all) makes the connection a viewer.
F_ROLE = "role"
ROLE_CONTROLLER = "controller"

# WebSocket close codes (RFC 6455)
CLOSE_NORMAL = 1000
CLOSE_POLICY_VIOLATION = 1008

CLOSE_REASON_NORMAL = "closed"
CLOSE_REASON_ROOM_FULL = "room full"

# Defaults
DEFAULT_PORT = 4200
DEFAULT_PLAYER_SLOTS = 2
DEFAULT_WS_PATH = "/ws"
DEFAULT_SEND_QUEUE_FRAMES = 64
