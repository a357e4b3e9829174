from txgraph.data_creation.generator import SampleDataGenerator
