from __future__ import annotations
from eth_abi import decode, encode
from web3 import Web3


def function_selector(signature: str) -> str:
    return "0x" + bytes(Web3.keccak(text=signature)[:4]).hex()


def event_topic(signature: str) -> str:
    return "0x" + bytes(Web3.keccak(text=signature)).hex()


ALLOWANCE_SELECTOR = function_selector("allowance(address,address)")
APPROVE_SELECTOR = function_selector("approve(address,uint256)")
APPROVAL_TOPIC = event_topic("Approval(address,address,uint256)")


def _hex_bytes(value: str) -> bytes:
    text = value[2:] if value.lower().startswith("0x") else value
    return bytes.fromhex(text)


def encode_allowance_call(owner: str, spender: str) -> str:
    args = encode(
        ["address", "address"],
        [Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)],
    )
    return ALLOWANCE_SELECTOR + args.hex()


def encode_approve_call(spender: str, amount: int) -> str:
    args = encode(["address", "uint256"], [Web3.to_checksum_address(spender), amount])
    return APPROVE_SELECTOR + args.hex()


def decode_uint256(data: str) -> str:
    """ABI-encoded uint256 return data or log data -> decimal string.

    Raises ``ValueError`` (or eth_abi's ``DecodingError``) on malformed data.
    """
    (value,) = decode(["uint256"], _hex_bytes(data))
    return str(value)


def address_topic(address: str) -> str:
    return "0x" + encode(["address"], [Web3.to_checksum_address(address)]).hex()


def topic_to_address(topic: str) -> str:
    (address,) = decode(["address"], _hex_bytes(topic))
    return address.lower()
