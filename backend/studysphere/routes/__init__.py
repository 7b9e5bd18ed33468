# Infrastructure routes (intentionally unversioned) live in main.py
# All application routes are in v1/
