"""
This subpackage contains trustctl internal modules. Their API may change
between releases without notice.
"""
