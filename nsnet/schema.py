from jsonschema import Draft7Validator, FormatChecker

from nsnet.constants import STATE_DOWN, STATE_UP

SCHEMA = {
    "description": "Persisted topology",
    "type": "object",
    "properties": {
        "Switches": {"type": "array", "items": {"$ref": "#/switch"}},
        "Hosts": {"type": "array", "items": {"$ref": "#/host"}},
    },
    "additionalProperties": False,
    "switch": {
        "title": "Switch",
        "type": "object",
        "properties": {
            "Name": {"type": "string", "minLength": 1},
            "Ports": {"type": ["array", "null"], "items": {"$ref": "#/link"}},
            "Controller": {"type": ["string", "null"]},
        },
        "required": ["Name"],
    },
    "host": {
        "title": "Host",
        "type": "object",
        "properties": {
            "Name": {"type": "string", "minLength": 1},
            "Links": {"type": ["array", "null"], "items": {"$ref": "#/link"}},
            "Procs": {"type": ["array", "null"], "items": {"$ref": "#/process"}},
            "Cgroup": {"oneOf": [{"type": "null"}, {"$ref": "#/cgroup"}]},
        },
        "required": ["Name"],
    },
    "link": {
        "title": "Link",
        "type": "object",
        "properties": {
            "Cidr": {"type": "string"},
            "HwAddr": {"type": "string", "format": "mac"},
            "Name": {"type": "string"},
            "NodeName": {"type": "string"},
            "NetNs": {"type": "string"},
            "State": {"type": "string", "enum": ["", STATE_UP, STATE_DOWN]},
            "Routes": {"type": ["array", "null"], "items": {"$ref": "#/route"}},
            "PeerName": {"type": "string"},
            "Peer": {"$ref": "#/peer"},
            "Patch": {"type": "boolean"},
        },
    },
    "route": {
        "type": "object",
        "properties": {
            "Dst": {"type": "string"},
            "Gw": {"type": "string", "format": "ip"},
        },
        "required": ["Dst", "Gw"],
    },
    "peer": {
        "type": "object",
        "properties": {
            "Name": {"type": "string"},
            "IfName": {"type": "string"},
            "NodeName": {"type": "string"},
        },
    },
    "process": {
        "type": "object",
        "properties": {
            "Command": {"type": "string", "minLength": 1},
            "Args": {"type": ["array", "null"], "items": {"type": "string"}},
            "Output": {"type": "string"},
            "Pid": {"type": "integer"},
        },
        "required": ["Command"],
    },
    "cgroup": {
        "type": "object",
        "properties": {
            "Name": {"type": "string", "minLength": 1},
            "Controllers": {
                "type": ["array", "null"],
                "items": {
                    "type": "object",
                    "properties": {
                        "Name": {"type": "string"},
                        "Params": {
                            "type": ["array", "null"],
                            "items": {
                                "type": "object",
                                "properties": {
                                    "Key": {"type": "string"},
                                    "Value": {
                                        "type": ["string", "number", "boolean"]
                                    },
                                },
                                "required": ["Key", "Value"],
                            },
                        },
                    },
                    "required": ["Name"],
                },
            },
        },
        "required": ["Name"],
    },
}

SchemeFormatChecker = FormatChecker()


@SchemeFormatChecker.checks("mac")
def is_valid_mac(instance):
    if not isinstance(instance, str):
        return False
    if instance == "":
        return True
    from netaddr import EUI, AddrFormatError

    try:
        EUI(instance)
        return True
    except AddrFormatError:
        return False


@SchemeFormatChecker.checks("ip")
def is_valid_ip(instance):
    import ipaddress

    try:
        # accept ipv4 and ipv6
        ipaddress.ip_address(instance)
        return True
    except ValueError:
        return False


SchemeValidator = Draft7Validator(SCHEMA, format_checker=SchemeFormatChecker)
