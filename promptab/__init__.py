"""Statistical A/B testing of prompt variants."""

from .statistics import (
    Comparison,
    StatisticalResult,
    VariantScores,
    VariantsAnalysis,
    analyze_variants,
    confidence_interval,
    is_significant,
    mean,
    p_value,
    sample_size_needed,
    std_dev,
    variance,
    z_score,
)
from .analysis import (
    ABTestAnalysis,
    StatisticalAnalyzer,
    TestResult,
    Variant,
    VariantMetrics,
    analyze_test,
    score_distribution,
)
from .config import Settings
from .runner import add_variant, clear_results, default_variants, parse_test_inputs, render_prompt, run_test
from .data_generator import generate_variant_results, results_to_frame, export_to_csv
