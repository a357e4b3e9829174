from txgraph.analysis.query import QueryEngine
from txgraph.analysis.statistics import AccountActivity, BankStatistics, StatisticsEngine, TransactionStatistics
from txgraph.analysis.graph import AccountDegree, GraphAnalytics
