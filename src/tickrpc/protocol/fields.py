"""Protocol constants.

Keep these in one place to avoid stringly-typed message handling.
"""

JSONRPC = "jsonrpc"
JSONRPC_VERSION = "2.0"

ID = "id"
METHOD = "method"
PARAMS = "params"
RESULT = "result"
ERROR = "error"

CODE = "code"
MESSAGE = "message"
DATA = "data"

# Methods answered by the dispatcher itself
INITIALIZE = "initialize"
LIST = "tools/list"
PING = "ping"

# The sole path into the capability registry
INVOKE = "tools/call"
INVOKE_NAME = "name"
INVOKE_ARGUMENTS = "arguments"

# Reported by initialize
PROTOCOL_VERSION = "2024-11-05"
