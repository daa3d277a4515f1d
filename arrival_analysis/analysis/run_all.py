"""Master runner for all analyses."""
import logging
import os
import sys

from ..src.data_loading import load_data
from .ordinal_walkthrough import run_ordinal_walkthrough
from .outcome_comparison import run_outcome_comparison


def run_all(data_path, output_dir='output', include_bayesian=False, mcmc_options=None):
    os.makedirs(output_dir, exist_ok=True)
    df = load_data(data_path)

    results = {}
    results['ordinal'] = run_ordinal_walkthrough(df, output_dir=output_dir,
                                                 include_bayesian=include_bayesian,
                                                 mcmc_options=mcmc_options)
    results['outcomes'] = run_outcome_comparison(df, output_dir=output_dir)

    return results


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')
    if len(sys.argv) >= 2:
        run_all(sys.argv[1],
                sys.argv[2] if len(sys.argv) > 2 else 'output',
                include_bayesian='--bayes' in sys.argv[3:])
