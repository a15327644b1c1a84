"""NETWATCH REALTIME: muestreo de métricas de red y detección de anomalías en tiempo real."""

__version__ = "0.1.0"
