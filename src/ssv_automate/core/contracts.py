"""ABI fragments for the contracts this tool calls."""

_CLUSTER_TUPLE = {
    "components": [
        {"internalType": "uint32", "name": "validatorCount", "type": "uint32"},
        {"internalType": "uint64", "name": "networkFeeIndex", "type": "uint64"},
        {"internalType": "uint64", "name": "index", "type": "uint64"},
        {"internalType": "bool", "name": "active", "type": "bool"},
        {"internalType": "uint256", "name": "balance", "type": "uint256"},
    ],
    "internalType": "struct ISSVNetworkCore.Cluster",
    "name": "cluster",
    "type": "tuple",
}

_OPERATOR_IDS = {"internalType": "uint64[]", "name": "operatorIds", "type": "uint64[]"}

DEPOSIT_CONTRACT_ABI = [
    {
        "inputs": [
            {"internalType": "bytes", "name": "pubkey", "type": "bytes"},
            {"internalType": "bytes", "name": "withdrawal_credentials", "type": "bytes"},
            {"internalType": "bytes", "name": "signature", "type": "bytes"},
            {"internalType": "bytes32", "name": "deposit_data_root", "type": "bytes32"},
        ],
        "name": "deposit",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
]

SSV_NETWORK_ABI = [
    {
        "inputs": [
            {"internalType": "bytes", "name": "publicKey", "type": "bytes"},
            _OPERATOR_IDS,
            {"internalType": "bytes", "name": "sharesData", "type": "bytes"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            _CLUSTER_TUPLE,
        ],
        "name": "registerValidator",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "bytes[]", "name": "publicKeys", "type": "bytes[]"},
            _OPERATOR_IDS,
            {"internalType": "bytes[]", "name": "sharesData", "type": "bytes[]"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            _CLUSTER_TUPLE,
        ],
        "name": "bulkRegisterValidator",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "bytes", "name": "publicKey", "type": "bytes"},
            _OPERATOR_IDS,
        ],
        "name": "exitValidator",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "bytes", "name": "publicKey", "type": "bytes"},
            _OPERATOR_IDS,
            _CLUSTER_TUPLE,
        ],
        "name": "removeValidator",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "address", "name": "clusterOwner", "type": "address"},
            _OPERATOR_IDS,
            _CLUSTER_TUPLE,
        ],
        "name": "liquidate",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]
