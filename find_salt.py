import re
import sys
import secrets
import time
import math
import multiprocessing as mp

from calculate_create2_address import (
    InvalidInput,
    SALT_LENGTH,
    compute_create2_address,
    parse_address,
    parse_bytecode_hash,
    parse_zero_bytes,
)

PROGRESS_INTERVAL = 5  # seconds between progress lines
STATS_BATCH = 10_000  # salts a worker tries before reporting and checking the stop flag


def generate_random_salt():
    return secrets.token_bytes(SALT_LENGTH)


def has_leading_zero_bytes(address: bytes, zero_bytes: int) -> bool:
    return address[:zero_bytes] == bytes(zero_bytes)


def find_salt(deployer: str, bytecode_hash: str, zero_bytes, random_bytes=secrets.token_bytes) -> str:
    """
    Search for a salt whose CREATE2 address starts with `zero_bytes` zero bytes.

    Runs until a match is found. `random_bytes(n)` must return n bytes from a
    cryptographically secure source; it is a parameter so tests can feed a
    known sequence of salts.

    :param deployer: The address of the deploying contract
    :param bytecode_hash: The keccak256 hash of the contract init code
    :param zero_bytes: Number of leading zero bytes required (0-20)
    :return: The accepted salt as 0x followed by 64 lowercase hex digits
    """
    deployer_bytes = parse_address(deployer)
    bytecode_hash_bytes = parse_bytecode_hash(bytecode_hash)
    zero_bytes = parse_zero_bytes(zero_bytes)

    while True:
        salt = random_bytes(SALT_LENGTH)
        address = compute_create2_address(deployer_bytes, salt, bytecode_hash_bytes)
        if has_leading_zero_bytes(address, zero_bytes):
            return '0x' + salt.hex()


def worker(deployer, bytecode_hash, zero_bytes, result_queue, stats_queue, should_exit):
    # Attempt counts are only sent when a progress logger reads them
    if stats_queue is not None:
        stats_queue.cancel_join_thread()

    while not should_exit.is_set():
        local_guesses = 0
        for _ in range(STATS_BATCH):
            salt = generate_random_salt()
            local_guesses += 1
            if has_leading_zero_bytes(compute_create2_address(deployer, salt, bytecode_hash), zero_bytes):
                should_exit.set()
                result_queue.put(salt)
                if stats_queue is not None:
                    stats_queue.put(local_guesses)
                return
        if stats_queue is not None:
            stats_queue.put(local_guesses)


def calculate_probability(zero_bytes):
    return (1 / 256) ** zero_bytes


def estimate_eta_50_percent(probability, guesses_per_second):
    if probability >= 1:
        return 0.0
    # Number of guesses needed for 50% probability
    guesses_for_50_percent = math.log(0.5) / math.log1p(-probability)
    return guesses_for_50_percent / guesses_per_second


def format_duration(seconds):
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, seconds = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if not hours:
        return f"{minutes}m {seconds:02d}s"
    days, hours = divmod(hours, 24)
    if not days:
        return f"{hours}h {minutes:02d}m"
    return f"{days:,}d {hours:02d}h"


def describe_progress(salts_tried, elapsed_time, zero_bytes):
    """One status line: salts tried against the 256**zero_bytes expected."""
    expected = 256 ** zero_bytes
    line = f"{salts_tried:,} salts tried ({salts_tried / expected:.2%} of {expected:,} expected)"
    if not elapsed_time or not salts_tried:
        return line
    salts_per_second = salts_tried / elapsed_time
    remaining = estimate_eta_50_percent(calculate_probability(zero_bytes), salts_per_second) - elapsed_time
    if remaining > 0:
        eta = f"50% chance in {format_duration(remaining)}"
    else:
        eta = "past the 50% mark"
    return f"{line}, {salts_per_second:,.0f} salts/s, {eta}"


def log_progress(stats_queue, start_time, total_guesses, should_exit, zero_bytes):
    next_report = time.time() + PROGRESS_INTERVAL
    while not should_exit.wait(0.1):
        while not stats_queue.empty():
            total_guesses.value += stats_queue.get()
        if time.time() < next_report:
            continue
        next_report += PROGRESS_INTERVAL
        line = describe_progress(total_guesses.value, time.time() - start_time, zero_bytes)
        print(f"\r{line}", end="", file=sys.stderr, flush=True)


def find_salt_parallel(deployer: str, bytecode_hash: str, zero_bytes, num_processes=None, show_progress=False) -> str:
    """
    Same search as `find_salt`, spread over several worker processes.

    Every worker runs its own loop on OS entropy. The first worker to find a
    match sets the shared stop event; the first salt on the result queue is
    returned once all workers have exited.
    """
    deployer_bytes = parse_address(deployer)
    bytecode_hash_bytes = parse_bytecode_hash(bytecode_hash)
    zero_bytes = parse_zero_bytes(zero_bytes)
    if num_processes is None:
        num_processes = max(1, mp.cpu_count() - 1)  # Leave one CPU for logging
    if isinstance(num_processes, bool) or not isinstance(num_processes, int) or num_processes < 1:
        raise InvalidInput(f"processes must be a positive integer: {num_processes!r}")

    start_time = time.time()
    result_queue = mp.Queue()
    stats_queue = mp.Queue() if show_progress else None
    total_guesses = mp.Value('Q', 0)
    should_exit = mp.Event()

    processes = []
    for _ in range(num_processes):
        p = mp.Process(target=worker, args=(deployer_bytes, bytecode_hash_bytes, zero_bytes,
                                            result_queue, stats_queue, should_exit))
        p.start()
        processes.append(p)

    log_process = None
    if show_progress:
        log_process = mp.Process(target=log_progress,
                                 args=(stats_queue, start_time, total_guesses, should_exit, zero_bytes))
        log_process.start()

    try:
        salt = result_queue.get()  # Blocks until a worker finds a match
    except BaseException:
        should_exit.set()
        for p in processes:
            p.terminate()
        raise
    finally:
        should_exit.set()
        for p in processes:
            p.join()
        if log_process is not None:
            log_process.join()

    if show_progress:
        while not stats_queue.empty():
            total_guesses.value += stats_queue.get()
        elapsed_time = time.time() - start_time
        print(f"\nMatch found after {total_guesses.value:,} salts tried in {format_duration(elapsed_time)}!",
              file=sys.stderr)

    return '0x' + salt.hex()


def parse_processes(value):
    if not re.fullmatch(r"[0-9]+", value) or int(value) < 1:
        raise InvalidInput(f"processes must be a positive integer: {value!r}")
    return int(value)


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if len(args) not in (3, 4):
        print("Usage: python find_salt.py DEPLOYER BYTECODE_HASH ZERO_BYTES [PROCESSES]", file=sys.stderr)
        print("Prints a salt whose CREATE2 address starts with ZERO_BYTES zero bytes.", file=sys.stderr)
        return 2

    deployer, bytecode_hash, zero_bytes = args[:3]
    try:
        # Validate everything before any search starts
        parse_address(deployer)
        parse_bytecode_hash(bytecode_hash)
        zero_bytes = parse_zero_bytes(zero_bytes)
        num_processes = parse_processes(args[3]) if len(args) == 4 else 1
    except InvalidInput as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 1

    try:
        if num_processes == 1:
            salt = find_salt(deployer, bytecode_hash, zero_bytes)
        else:
            print(f"Searching for a salt giving {zero_bytes} leading zero bytes "
                  f"using {num_processes} worker processes.", file=sys.stderr)
            print("Press Ctrl+C to stop the program", file=sys.stderr)
            salt = find_salt_parallel(deployer, bytecode_hash, zero_bytes, num_processes, show_progress=True)
    except KeyboardInterrupt:
        print("\nProgram terminated by user", file=sys.stderr)
        return 130

    # print the result so callers (e.g. forge ffi) can read it
    print(salt)
    return 0


if __name__ == "__main__":
    sys.exit(main())
