"""Resource types, vesting schedules, investmint keeper and contract message parsing."""