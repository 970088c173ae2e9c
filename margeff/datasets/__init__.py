from margeff.datasets.synthetic import (
    SyntheticDataset,
    logistic_cell_probs,
    simulate_binary_outcomes,
    two_factor_example,
)

__all__ = [
    'SyntheticDataset',
    'logistic_cell_probs', 'simulate_binary_outcomes', 'two_factor_example',
]
