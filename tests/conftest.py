import os

# Keep litellm from fetching its model cost map over the network in a
# background thread (and from subprocess CLI runs, which inherit this env).
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")
