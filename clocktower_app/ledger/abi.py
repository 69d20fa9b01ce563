"""Contract interfaces used by the caller (only the functions it needs)."""

CLOCKTOWER_ABI = [
    {
        "name": "remit",
        "type": "function",
        "inputs": [],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
    {
        "name": "nextUncheckedDay",
        "type": "function",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
    {
        "name": "getIdByTime",
        "type": "function",
        "inputs": [
            {"name": "frequency", "type": "uint256"},
            {"name": "dueDay", "type": "uint16"},
        ],
        "outputs": [{"name": "", "type": "bytes32[]"}],
        "stateMutability": "view",
    },
    {
        "name": "maxRemits",
        "type": "function",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
]

ERC20_ABI = [
    {
        "name": "balanceOf",
        "type": "function",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
    {
        "name": "decimals",
        "type": "function",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
    },
    {
        "name": "symbol",
        "type": "function",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
    },
    {
        "name": "name",
        "type": "function",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
    },
]

# Multicall3 is deployed at the same address on every supported chain
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"

MULTICALL3_ABI = [
    {
        "name": "aggregate3",
        "type": "function",
        "inputs": [
            {
                "name": "calls",
                "type": "tuple[]",
                "components": [
                    {"name": "target", "type": "address"},
                    {"name": "allowFailure", "type": "bool"},
                    {"name": "callData", "type": "bytes"},
                ],
            }
        ],
        "outputs": [
            {
                "name": "returnData",
                "type": "tuple[]",
                "components": [
                    {"name": "success", "type": "bool"},
                    {"name": "returnData", "type": "bytes"},
                ],
            }
        ],
        "stateMutability": "payable",
    },
]

# Function name -> ABI used to encode/decode it
FUNCTION_ABIS = {
    entry["name"]: abi
    for abi in (CLOCKTOWER_ABI, ERC20_ABI)
    for entry in abi
}


def abi_for(function: str) -> list:
    """ABI containing ``function``; raises KeyError for unknown functions."""
    return FUNCTION_ABIS[function]


def output_types(function: str) -> list[str]:
    """ABI output types of a known function, for decoding raw return data."""
    for entry in abi_for(function):
        if entry["name"] == function:
            return [output["type"] for output in entry["outputs"]]
    raise KeyError(function)
