"""Short-horizon demand forecasting: seasonal naive, Holt-Winters and automatic selection."""