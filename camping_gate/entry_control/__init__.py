"""门岗入场控制：身份核验、扫码、家庭勾选、批量登记和收银班次."""
