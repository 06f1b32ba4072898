"""Configuration backend implementations.

This package contains the ZooKeeper backend (tree walk and node
watches), the SSM Parameter Store backend (Kinesis change stream) and
the Rancher metadata backend (HTTP, no watch). Each is imported on
demand by :func:`confwatch.core.environment.create_backend`.
"""
