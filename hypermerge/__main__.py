"""
Find the primes up to n on every process and merge them onto process 0.

Usage: mpiexec -n <p> python -m hypermerge <n>
"""

import logging
import sys

import numpy as np
from mpi4py import MPI

from .config import MergeConfig
from .driver import merge_lists
from .errors import MergeError
from .transport import MPITransport

root = 0


def is_prime(i):
    j = 2
    while j * j <= i:
        if i % j == 0:
            return False
        j += 1
    return True


def local_primes(n, my_rank, num_procs):
    """Primes <= n among this process's odd candidates, 2 going to process 0."""
    primes = [2] if my_rank == 0 and n >= 2 else []
    incr = 2 * num_procs
    primes.extend(i for i in range(2 * my_rank + 3, n + 1, incr) if is_prime(i))
    return np.array(primes, dtype=np.int64)


def get_n(argv, my_rank, comm):
    """Read n on the root and broadcast it; -1 means the input was bad."""
    n = None
    if my_rank == root:
        try:
            n = int(argv[0]) if len(argv) == 1 else -1
        except ValueError:
            n = -1
    n = comm.bcast(n, root=root)

    # Check for bogus input
    if n <= 1:
        if my_rank == root:
            print("usage: mpiexec -n <p> python -m hypermerge <n>", file=sys.stderr)
            print("   p = number of MPI processes", file=sys.stderr)
            print("   n = max integer to test for primality (>= 2)", file=sys.stderr)
        return -1
    return n


def main(argv=None, comm=None):
    argv = sys.argv[1:] if argv is None else argv
    comm = MPI.COMM_WORLD if comm is None else comm
    num_procs = comm.Get_size()
    my_rank = comm.Get_rank()

    config = MergeConfig.from_env()
    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(message)s",
    )

    n = get_n(argv, my_rank, comm)
    if n < 0:
        return 0

    local_data = local_primes(n, my_rank, num_procs)

    start = MPI.Wtime()
    try:
        result = merge_lists(local_data, MPITransport(comm), config)
    except MergeError as e:
        print(f"Process {my_rank}: merge failed: {e}", file=sys.stderr)
        comm.Abort(1)
        return 1
    finish = MPI.Wtime()

    if result.is_root:
        print("The primes are\n", result.final_list)
        print("Time it took for ", num_procs, "processors", (finish - start) * 1e6, "micro seconds")
    return 0


if __name__ == "__main__":
    sys.exit(main())
