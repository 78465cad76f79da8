import re
import sys
from eth_utils import keccak, to_checksum_address, decode_hex, is_hexstr

CREATE2_PREFIX = b'\xff'
ADDRESS_LENGTH = 20
SALT_LENGTH = 32
BYTECODE_HASH_LENGTH = 32


class InvalidInput(ValueError):
    """Raised when an argument does not have the expected shape."""


def _parse_hex(value, length, name):
    if not isinstance(value, str):
        raise InvalidInput(f"{name} must be a hex string, got {type(value).__name__}")
    if not value.startswith('0x'):
        raise InvalidInput(f"{name} must start with 0x: {value!r}")
    if len(value) != 2 + length * 2:
        raise InvalidInput(f"{name} must be 0x followed by {length * 2} hex digits: {value!r}")
    if not is_hexstr(value):
        raise InvalidInput(f"{name} contains non-hex characters: {value!r}")
    return decode_hex(value)


def parse_address(value, name="deployer"):
    return _parse_hex(value, ADDRESS_LENGTH, name)


def parse_salt(value, name="salt"):
    return _parse_hex(value, SALT_LENGTH, name)


def parse_bytecode_hash(value, name="bytecodeHash"):
    return _parse_hex(value, BYTECODE_HASH_LENGTH, name)


def parse_zero_bytes(value, name="zeroBytes"):
    """
    Parse the number of leading zero bytes requested in the derived address.

    Accepts an int or a decimal string. Anything negative, non-integer or
    larger than the address length is rejected.
    """
    if isinstance(value, bool):
        raise InvalidInput(f"{name} must be an integer: {value!r}")
    if isinstance(value, int):
        count = value
    elif isinstance(value, str) and re.fullmatch(r"[0-9]+", value):
        count = int(value)
    else:
        raise InvalidInput(f"{name} must be a non-negative decimal integer: {value!r}")
    if count < 0 or count > ADDRESS_LENGTH:
        raise InvalidInput(f"{name} must be between 0 and {ADDRESS_LENGTH}, got {count}")
    return count


def compute_create2_address(deployer: bytes, salt: bytes, bytecode_hash: bytes) -> bytes:
    # keccak256(0xff ++ deployer ++ salt ++ bytecode_hash)[12:]
    return keccak(CREATE2_PREFIX + deployer + salt + bytecode_hash)[-ADDRESS_LENGTH:]


def calculate_create2_address(deployer: str, salt: str, bytecode_hash: str) -> str:
    """
    Calculate the address a contract would get when deployed with CREATE2.

    :param deployer: The address of the deploying contract (0x + 40 hex digits)
    :param salt: The 32 byte salt (0x + 64 hex digits)
    :param bytecode_hash: The keccak256 hash of the init code (0x + 64 hex digits)
    :return: The derived address, lowercase, 0x prefixed
    """
    address = compute_create2_address(
        parse_address(deployer),
        parse_salt(salt),
        parse_bytecode_hash(bytecode_hash),
    )
    return '0x' + address.hex()


def calculate_init_code_hash(init_code: str) -> str:
    """Hash raw contract creation bytecode into the value CREATE2 expects."""
    if not isinstance(init_code, str) or not is_hexstr(init_code) or len(init_code.removeprefix('0x')) % 2:
        raise InvalidInput(f"init code must be an even-length hex string: {init_code!r}")
    return '0x' + keccak(hexstr=init_code).hex()


def print_result(deployer, salt, bytecode_hash, contract_address):
    print(f"\nDeployer: {deployer}")
    print(f"Salt: {salt}")
    print(f"Bytecode Hash: {bytecode_hash}")
    print(f"Contract Address: {to_checksum_address(contract_address)}\n")


def interactive_mode():
    print("CREATE2 Contract Address Checker")
    print("================================")

    while True:
        deployer = input("Enter the deployer address (or 'q' to quit): ")
        if deployer.lower() == 'q':
            break

        try:
            salt = input("Enter the salt: ")
            bytecode_hash = input("Enter the bytecode hash: ")

            contract_address = calculate_create2_address(deployer, salt, bytecode_hash)
            print_result(deployer, salt, bytecode_hash, contract_address)
        except InvalidInput as e:
            print(f"Invalid input: {e}")

        print("--------------------------------")


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if len(args) == 3:
        # Command-line mode
        deployer, salt, bytecode_hash = args
        try:
            contract_address = calculate_create2_address(deployer, salt, bytecode_hash)
        except InvalidInput as e:
            print(f"Invalid input: {e}", file=sys.stderr)
            return 1
        print_result(deployer, salt, bytecode_hash, contract_address)
    elif len(args) == 0:
        # Interactive mode
        interactive_mode()
    else:
        print("Usage: python calculate_create2_address.py [DEPLOYER SALT BYTECODE_HASH]", file=sys.stderr)
        print("If no arguments are provided, the script will run in interactive mode.", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
