"""
Core protocols for PyRandomization.

We use Protocol (structural typing) rather than ABC (nominal typing) to allow
flexibility while maintaining type safety.
"""

from typing import Protocol, TypeVar, runtime_checkable

P = TypeVar('P')  # Parameter payload type
D = TypeVar('D')  # Design type


@runtime_checkable
class Backend(Protocol[D, P]):
    """
    Protocol for computational backends.

    Each backend takes a domain-specific design and produces a
    domain-specific parameter payload wrapped in a Result.

    Backends are stateless: all configuration is passed via the design
    or at construction time. This makes them easy to test and swap.
    """

    @property
    def name(self) -> str:
        """
        Backend identifier.

        Convention: '{device}_{algorithm}'
        Examples: 'cpu_qr', 'cpu_randomization'
        """
        ...

    def solve(self, design: D) -> 'Result[P]':
        """
        Execute the statistical computation.

        Raises:
            NumericalError: If numerical issues prevent solution
            ValidationError: If design is invalid for this backend
        """
        ...
