"""
push-digest: describe what a push did to a git reference.

The package turns one post-receive line into a PushResult: a summary of
the reference change and the ordered list of commits it introduced,
each with a parsed per-file diff. Start at engine.process_reference_change.
"""
