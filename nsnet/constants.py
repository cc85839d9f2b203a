# Link states
STATE_UP = "UP"
STATE_DOWN = "DOWN"

# Interface name prefixes
ETH_PREFIX = "eth"
PATCH_PREFIX = "pp"
VETH_PREFIX = "veth"

# Namespace value forcing a link to stay in the root namespace
ROOT_NETNS = "root"

# Random node names are drawn in [0, N)
HOSTNAME_RANGE = 1024
SWITCHNAME_RANGE = 200

# Locally administered bit of the first MAC octet
LOCAL_ADMIN_BIT = 0x02

EMPTY_HWADDR = "00:00:00:00:00:00"

# Node kinds, carried by the persisted form
HOST = "host"
SWITCH = "switch"
