"""appctl: docker-compose application launcher.

Brings a compose deployment up, waits until it is ready and then watches it:
 - readiness polling (containers running + application port answering)
 - crash watchdog (no container running -> exit non-zero)
 - clean shutdown on SIGINT / SIGTERM / SIGQUIT

Everything that actually manages containers is delegated to docker-compose.
"""
