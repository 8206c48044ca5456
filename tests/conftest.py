import pandas as pd
import pytest

from neurodrill.aggregate import Aggregator
from neurodrill.config import make_config


@pytest.fixture
def cfg():
    return make_config()


@pytest.fixture
def aggregator(cfg):
    return Aggregator(cfg)


@pytest.fixture
def battery() -> pd.DataFrame:
    """2 domains x 2 subdomains x 3 scales, percentiles only."""
    layout = {
        ("Verbal/Language", "Fluency"): [10, 20, 30],
        ("Memory", "Visual Memory"): [40, 50, 60],
        ("Verbal/Language", "Naming"): [20, 30, 40],
        ("Memory", "Verbal Memory"): [60, 70, 80],
    }
    rows = []
    for (domain, subdomain), pcts in layout.items():
        for i, pct in enumerate(pcts, start=1):
            rows.append({
                "domain": domain,
                "subdomain": subdomain,
                "scale": f"{subdomain} {i}",
                "percentile": pct,
            })
    return pd.DataFrame(rows)
