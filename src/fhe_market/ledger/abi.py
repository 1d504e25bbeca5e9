# src/fhe_market/ledger/abi.py

"""ABI of the on-chain compute task registry (only the functions this client calls)."""

from __future__ import annotations

from typing import Any

TASK_RECORD_FIELDS = (
    "name",
    "publicValue1",
    "publicValue2",
    "description",
    "creator",
    "timestamp",
    "isVerified",
    "decryptedValue",
)


def _param(name: str, type_: str) -> dict[str, str]:
    return {"name": name, "type": type_, "internalType": type_}


REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "getAllBusinessIds",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [_param("", "string[]")],
    },
    {
        "type": "function",
        "name": "getBusinessData",
        "stateMutability": "view",
        "inputs": [_param("businessId", "string")],
        "outputs": [
            _param("name", "string"),
            _param("publicValue1", "uint256"),
            _param("publicValue2", "uint256"),
            _param("description", "string"),
            _param("creator", "address"),
            _param("timestamp", "uint256"),
            _param("isVerified", "bool"),
            _param("decryptedValue", "uint32"),
        ],
    },
    {
        "type": "function",
        "name": "getEncryptedValue",
        "stateMutability": "view",
        "inputs": [_param("businessId", "string")],
        "outputs": [_param("", "bytes32")],
    },
    {
        "type": "function",
        "name": "createBusinessData",
        "stateMutability": "nonpayable",
        "inputs": [
            _param("businessId", "string"),
            _param("name", "string"),
            _param("encryptedValue", "bytes32"),
            _param("inputProof", "bytes"),
            _param("publicValue1", "uint256"),
            _param("publicValue2", "uint256"),
            _param("description", "string"),
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "verifyDecryption",
        "stateMutability": "nonpayable",
        "inputs": [
            _param("businessId", "string"),
            _param("abiEncodedClearValue", "bytes"),
            _param("decryptionProof", "bytes"),
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "isAvailable",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [_param("", "bool")],
    },
]


def record_to_dict(raw: Any) -> dict[str, Any]:
    """Map the positional getBusinessData() result onto field names."""
    if isinstance(raw, dict):
        return dict(raw)
    values = list(raw)
    if len(values) != len(TASK_RECORD_FIELDS):
        raise ValueError(f"Unexpected task record shape ({len(values)} fields)")
    return dict(zip(TASK_RECORD_FIELDS, values))
