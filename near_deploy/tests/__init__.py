"""
near-deploy tests

Run with:
    pytest near_deploy/tests/ -v

Nothing here talks to a real network: the near binary is replaced by a
mocked subprocess.run and RPC calls are patched.
"""
