# markdown descriptions for tensorboard outputs go here
from collections import defaultdict

stylization_seconds = """
# Stylization time

Wall-clock seconds for one call to `Stylizer.stylize()`: predicting the style bottleneck (twice if a strength was given) and running the transformer.
"""

stylized_image = """
# Stylized image

Output of the most recent stylization, rescaled to the unit interval.
"""

summary_descriptions = defaultdict(str)
summary_descriptions["stylization_seconds"] = stylization_seconds
summary_descriptions["stylized_image"] = stylized_image
