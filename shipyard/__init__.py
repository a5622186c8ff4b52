"""
Shipyard - Idempotent single-host provisioning and deployment.

This package provides a CLI that provisions a host (Node.js, Yarn, PM2,
nginx, RabbitMQ), builds a Next.js application and publishes it behind
nginx under PM2 supervision.
"""

__version__ = "0.1.0"
__author__ = "Shipyard"
