"""
Bald Brothers Story Engine.

Poll-driven serialized fiction: readers vote, the scheduler closes the poll,
a language model writes the next chapter, and a new poll opens.
"""

__version__ = "1.0.0"
