"""Scripts executed under mpiexec by Distributor.runner."""
