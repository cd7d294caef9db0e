"""cluster-spine — desired-state rollout pipeline for HPE Cray EX (CSM) clusters.

Turns a SAT-style descriptor into CFS configurations, IMS images and BOS
session templates, then power-cycles the affected nodes.
"""

__version__ = "0.1.0"
