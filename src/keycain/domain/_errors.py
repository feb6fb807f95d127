"""
Warnings raised by KeyCain optimisers.

Optimisers never recover from collaborator failures; those propagate to the
caller unchanged. The only condition signalled by this package itself is a
numerically degenerate estimate (a zero-length momentum vector or hold-one-out
mean) which produces a non-finite intermediate value. Such values are flagged
with `NumericDegeneracyWarning` and then clamped exactly as the update rule
prescribes, never silently replaced.
"""


class NumericDegeneracyWarning(RuntimeWarning):
    """
    Issued when an adaptation statistic evaluates to NaN or infinity.

    Attributes
    ----------
    quantity : str
        Name of the statistic that degenerated (e.g. "rel_var", "sim").
    value : float
        The non-finite value that was observed.
    """

    def __init__(self, quantity: str, value: float) -> None:
        """
        Initialize the warning.

        Parameters
        ----------
        quantity : str
            Name of the degenerate statistic.
        value : float
            The observed non-finite value.
        """
        super().__init__(
            f"{quantity} evaluated to {value!r}; "
            "the adaptation step will use the clamped bound."
        )
        self.quantity = quantity
        self.value = value
