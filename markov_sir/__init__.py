"""
Markov chain SIR is a discrete-time stochastic model for disease outbreaks in a closed population.

The main model is the `markov_chain`, which advances the susceptible, infected and recovered counts with binomial
draws at each time step. The `run_model` module runs ensembles of the model from the tables listed in a config file,
and `benchmark` times repeated, reproducible runs.
"""
