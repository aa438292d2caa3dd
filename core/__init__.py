"""core/ -- Configuration and domain errors shared by every layer.

Layer rule: core/ is the kernel. It imports only stdlib and third-party
libraries, never api/, auth/, or loans/.
"""
